"""Capture result contract.

The vision backend is an external collaborator, so inconsistencies in its
replies are reported as defects instead of raised: a FAIL verdict without
reasons is still a reportable FAIL.
"""

from garmentqc.schemas.domain import CaptureResult, QCStatus


def capture_defects(result: CaptureResult) -> list[str]:
    """List inconsistencies in a capture result.

    Parameters
    ----------
    result : CaptureResult
        Parsed vision backend reply.

    Returns
    -------
    list of str
        Human-readable defects; empty when the reply is consistent.
    """
    defects = []
    if result.qc_status == QCStatus.FAIL and not result.qc_failures:
        defects.append("QC status FAIL reported without failure reasons")
    if result.qc_status != QCStatus.FAIL and result.qc_failures:
        defects.append(
            f"QC status {result.qc_status.value} reported with {len(result.qc_failures)} failure reason(s)"
        )
    if result.confidence < 0:
        defects.append(f"Negative confidence {result.confidence}")
    roles = [img.role for img in result.images]
    if len(roles) != len(set(roles)):
        defects.append("Duplicate evidence image roles")
    return defects
