from ..models import AuditLog


def log_action(*, action: str, instance, actor=None, changes: dict | None = None):
    """
    Central audit logger.
    Call inside the same transaction as the change so both commit together.
    `actor` is a Principal, a User or None for system actions.
    """
    actor_id = getattr(actor, "id", None) if actor is not None else None

    AuditLog.objects.create(
        actor_id=actor_id,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=_plain(changes),
    )


def _plain(value):
    # Decimals and dates are not JSON serializable as-is
    if value is None:
        return None
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
