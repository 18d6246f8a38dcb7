from typing import Optional


class ConfigError(Exception):
    """
    Raised at startup when a required secret or setting is missing or malformed.
    Nothing has touched the network yet.
    """


class AggregatorError(Exception):
    """
    Raised when the swap API cannot be reached, answers with a non-success
    status, or returns a body that does not match the expected schema.
    """

    def __init__(self, msg: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(msg)
        self.msg = msg
        self.status_code = status_code
        self.body = body


class ChainError(Exception):
    """
    Raised when an RPC call fails, a simulation reverts, a broadcast is
    rejected, or a mined transaction reports failure.
    """

    def __init__(self, msg: str, tx_hash: Optional[str] = None):
        super().__init__(msg)
        self.msg = msg
        self.tx_hash = tx_hash
