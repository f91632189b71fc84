"""
Service layer.

Each service encapsulates the business logic of one domain and raises
``AppError`` subclasses that the API layer renders as error envelopes.
"""
