"""
Response head builder and canned replies.
"""
from http import HTTPStatus

_STOCK_BODY = (
    '<html><head><title>{phrase}</title></head>'
    '<body><h1>{code} {phrase}</h1></body></html>'
)


class HttpReply:
    """Status line plus ordered headers, written once to a connection"""

    def __init__(self, status: int = HTTPStatus.OK):
        self.status = int(status)
        self.headers = []

    def header(self, name: str, value: str) -> 'HttpReply':
        """Append a header and return self for chaining"""
        self.headers.append((name, str(value)))
        return self

    def get_header(self, name: str, default=None):
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return default

    def write(self, connection) -> None:
        connection.write_head(self)


def stock_reply(connection, status: int, server_header: str = 'web_video_server') -> None:
    """Write a complete canned HTML reply for status and close the connection"""
    status = HTTPStatus(status)
    body = _STOCK_BODY.format(code=status.value, phrase=status.phrase)
    (HttpReply(status)
        .header('Connection', 'close')
        .header('Server', server_header)
        .header('Content-type', 'text/html')
        .header('Content-Length', len(body))
        .write(connection))
    connection.write(body)
    connection.close()
