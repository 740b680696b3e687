"""
Background services: MQTT bus, topic directory and cleanup sweeper.
"""
