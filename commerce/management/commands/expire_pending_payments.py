"""
Cancel mobile money payments whose confirmation window has passed.

Meant to run periodically (cron, systemd timer):

    python manage.py expire_pending_payments
    python manage.py expire_pending_payments --dry-run
"""

from django.core.management.base import BaseCommand

from commerce.payments.coordinator import PaymentCoordinator


class Command(BaseCommand):
    help = "Cancel pending mobile money payments that are past their expiry"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the stale payments without changing them",
        )

    def handle(self, *args, **options):
        coordinator = PaymentCoordinator()

        if options["dry_run"]:
            stale = list(coordinator.stale_payments())
            for payment in stale:
                self.stdout.write(
                    f"Would expire payment {payment.transaction_id} "
                    f"({payment.payment_method}, expired at {payment.expires_at:%Y-%m-%d %H:%M})"
                )
            self.stdout.write(self.style.SUCCESS(f"{len(stale)} stale payment(s) found"))
            return

        self.stdout.write("Expiring stale payments...")
        expired = coordinator.expire_stale_payments()
        for payment in expired:
            self.stdout.write(f"Expired payment {payment.transaction_id}")
        self.stdout.write(self.style.SUCCESS(f"Successfully expired {len(expired)} payment(s)"))
