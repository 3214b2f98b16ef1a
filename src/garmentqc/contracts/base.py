"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for internal
contracts. It enforces semantic invariants between components; bad user
input is reported with ValidationError instead.
"""

from garmentqc.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a pipeline contract.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.

    message : str
        Error message explaining the contract violation (for debugging).

    Raises
    ------
    ContractViolation
        If condition is False. This indicates a bug in pipeline logic.

    Examples
    --------
    >>> require(record_id is not None, "Report contract: record id missing")
    """
    if not condition:
        raise ContractViolation(message)
