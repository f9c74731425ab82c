from django.db.models import QuerySet

from ..exceptions import NotFound


def fetch(source, pk, *, lock=False, label=None):
    """Load one row by pk, raising NotFound instead of DoesNotExist.

    `source` is a model class or a queryset. lock=True takes a row lock and
    must be called inside transaction.atomic().
    """
    qs = source if isinstance(source, QuerySet) else source.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=pk)
    except qs.model.DoesNotExist:
        raise NotFound(f"{label or qs.model.__name__} {pk} not found")
