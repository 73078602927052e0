"""
Management command to apply due system transitions

Expires stale offers, moves approved requests to signature, cancels requests
past their signature or bank-details window, and flags, closes or defaults
active loans from their EMI schedule.

Usage:
    python manage.py run_workflow_sweeps
    python manage.py run_workflow_sweeps --dry-run  # List what is due, change nothing
"""

from django.core.management.base import BaseCommand

from lending.sweeps import due_transitions, run_sweeps


class Command(BaseCommand):
    help = 'Apply due system workflow transitions (expiry, overdue, close, default)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List due transitions without applying them',
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            due = list(due_transitions())
            for loan_request, action_id in due:
                self.stdout.write(f"  {loan_request.request_number}: {loan_request.current_status} -> {action_id}")
            self.stdout.write(self.style.WARNING(f"{len(due)} transition(s) due, nothing applied"))
            return

        counts = run_sweeps()
        skipped = counts.pop('skipped', 0)
        for action_id, count in sorted(counts.items()):
            self.stdout.write(f"  {action_id}: {count}")
        if skipped:
            self.stdout.write(self.style.WARNING(f"  skipped: {skipped}"))
        self.stdout.write(self.style.SUCCESS(f"[SUCCESS] Applied {sum(counts.values())} transition(s)"))
