# portable_fs/monitoring/context.py
"""
Context helpers using contextvars for operation/scope propagation into logs.
"""
import contextvars

operation_id_var = contextvars.ContextVar("operation_id", default=None)
scope_var = contextvars.ContextVar("scope", default=None)

def set_storage_context(operation_id=None, scope=None):
    if operation_id is not None:
        operation_id_var.set(operation_id)
    if scope is not None:
        scope_var.set(scope)

def get_storage_context():
    return {
        "operation_id": operation_id_var.get(),
        "scope": scope_var.get(),
    }
