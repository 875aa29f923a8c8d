from django.db import transaction
from django.db.models import F
from .models import RateWindow


class DBRateWindowStore:
    """Rate windows persisted as ``RateWindow`` rows, one per source and minute."""

    def count(self, source_key, window_start):
        rw = RateWindow.objects.filter(source_key=source_key, window_start=window_start).first()
        return rw.request_count if rw else 0

    @transaction.atomic
    def increment(self, source_key, window_start, now):
        rw, created = RateWindow.objects.select_for_update().get_or_create(
            source_key=source_key,
            window_start=window_start,
            defaults={"request_count": 1, "last_updated": now}
        )
        if created:
            return rw.request_count
        # Atomic in-database increment
        RateWindow.objects.filter(pk=rw.pk).update(
            request_count=F("request_count") + 1,
            last_updated=now,
        )
        rw.refresh_from_db(fields=["request_count"])
        return rw.request_count

    def windows_since(self, source_key, since):
        return list(
            RateWindow.objects
            .filter(source_key=source_key, window_start__gte=since)
            .order_by("window_start")
            .values_list("window_start", "request_count")
        )

    def delete_before(self, cutoff, source_key=None):
        old = RateWindow.objects.filter(window_start__lt=cutoff)
        if source_key is not None:
            old = old.filter(source_key=source_key)
        deleted, _ = old.delete()
        return deleted
