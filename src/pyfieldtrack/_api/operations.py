"""Operation endpoints consumed by the resume reconciler."""

from __future__ import annotations

from pyfieldtrack._api._common import parse_model_list, path_segment, request_data
from pyfieldtrack._transport import Transport
from pyfieldtrack.models.operation import Operation, OperationStatus


async def fetch_today_operations_by_operator(transport: Transport, operator_id: str) -> list[Operation]:
    """Fetch today's operations assigned to *operator_id*."""
    endpoint = f"/operations/today/operator/{path_segment(operator_id)}"
    data, _message = await request_data(transport, "GET", endpoint)
    return parse_model_list(endpoint, Operation, data)


def find_active_operation(operations: list[Operation]) -> Operation | None:
    """First operation with status ``active``, if any."""
    return next((op for op in operations if op.status == OperationStatus.ACTIVE), None)
