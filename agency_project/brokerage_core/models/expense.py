from django.conf import settings
from django.db import models
from django.utils import timezone


class Expense(models.Model):  # Agency running cost, netted off revenue
    category = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    date = models.DateField(default=timezone.localdate)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date", "-created_at"]
        indexes = [models.Index(fields=["date"], name="brokerage_c_date_expense_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_expense_amount_positive"
            ),
        ]

    def __str__(self):
        return f"{self.category} {self.amount} ({self.date})"
