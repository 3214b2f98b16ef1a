"""Size standard contract.

Enforces the guarantee that after ingestion every size column carries the
same ordered set of point-of-measure rows.
"""

from garmentqc.contracts.base import require
from garmentqc.schemas.domain import SizeStandard


def assert_standard_shape(standard: SizeStandard) -> None:
    """Enforce the ingestion output contract.

    Called after the size pivot and before the upsert. Verifies structure,
    not the content of tolerance or value cells.

    Raises
    ------
    ContractViolation
        If sizes are missing or their POM rows differ.
    """
    require(
        len(standard.sizes) > 0,
        "Standards contract violated: no size columns"
    )

    reference = None
    for size, entries in standard.sizes.items():
        codes = [e.code for e in entries]
        require(
            len(codes) > 0,
            f"Standards contract violated: size '{size}' has no POM rows"
        )
        if reference is None:
            reference = codes
        require(
            codes == reference,
            f"Standards contract violated: size '{size}' POM rows differ from first size"
        )
