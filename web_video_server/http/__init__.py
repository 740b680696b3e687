"""
Framework-free request, reply and connection types used by the dispatcher.
"""
from .connection import HttpConnection, ConnectionClosed
from .reply import HttpReply, stock_reply
from .request import HttpRequest
