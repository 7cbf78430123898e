from .consumer import consumer_bp


__all__ = [
    'consumer_bp',
]
