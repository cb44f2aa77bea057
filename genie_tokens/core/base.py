from genie_tokens.utils.logger import get_logger


class BaseService:
    """Base service class with a per-class structured logger."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
