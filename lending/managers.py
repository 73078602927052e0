"""
Custom QuerySets and Managers
==============================

Provides reusable query methods for common filtering operations
"""

from datetime import timedelta

from django.contrib.auth.models import BaseUserManager
from django.db import models
from django.utils import timezone

from lending.constants import EMIStatus, RequestStatus, Role


class UserQuerySet(models.QuerySet):
    """QuerySet for platform users"""

    def active(self):
        return self.filter(is_active=True)

    def agents_in_district(self, district):
        """
        Active agents serving a district

        Roles and districts are JSON lists, and JSON containment lookups are
        not available on every backend, so membership is checked in Python
        and the result narrowed back to a queryset.
        """
        pks = [
            user.pk for user in self.active().only('pk', 'roles', 'districts')
            if user.has_role(Role.AGENT) and user.serves_district(district)
        ]
        return self.filter(pk__in=pks)


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication"""

    def get_queryset(self):
        return UserQuerySet(self.model, using=self._db)

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email address is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('roles', [Role.SUPER_ADMIN.value])
        return self.create_user(email, password, **extra_fields)

    def agents_in_district(self, district):
        return self.get_queryset().agents_in_district(district)


class LoanRequestQuerySet(models.QuerySet):
    """Custom QuerySet for LoanRequest model"""

    def in_status(self, *statuses):
        return self.filter(current_status__in=statuses)

    def idle_since(self, status, days, now=None):
        """Requests sitting in ``status`` for at least ``days`` days"""
        now = now or timezone.now()
        return self.filter(
            current_status=status,
            status_changed_at__lte=now - timedelta(days=days),
        )


class LoanRequestManager(models.Manager):
    """Custom Manager for LoanRequest model"""

    def get_queryset(self):
        return LoanRequestQuerySet(self.model, using=self._db)

    def in_status(self, *statuses):
        return self.get_queryset().in_status(*statuses)

    def idle_since(self, status, days, now=None):
        return self.get_queryset().idle_since(status, days, now=now)

    def actionable_by_system(self):
        return self.get_queryset().in_status(
            RequestStatus.OFFER_SENT,
            RequestStatus.APPROVED,
            RequestStatus.PENDING_SIGNATURE,
            RequestStatus.PENDING_BANK_DETAILS,
            RequestStatus.ACTIVE,
            RequestStatus.PAYMENT_OVERDUE,
        )


class RequestHistoryQuerySet(models.QuerySet):
    """Append-only: bulk edits and deletes are refused"""

    def update(self, **kwargs):
        raise TypeError('Request history is append-only and cannot be updated')

    def delete(self):
        raise TypeError('Request history is append-only and cannot be deleted')

    def for_request(self, request):
        return self.filter(request=request).order_by('id')


class RequestHistoryManager(models.Manager):

    def get_queryset(self):
        return RequestHistoryQuerySet(self.model, using=self._db)

    def for_request(self, request):
        return self.get_queryset().for_request(request)


class EMIScheduleQuerySet(models.QuerySet):
    """Custom QuerySet for EMISchedule model"""

    def unpaid(self):
        return self.filter(status__in=[EMIStatus.PENDING, EMIStatus.OVERDUE])

    def missed(self, today=None):
        """Unpaid installments whose due date has passed"""
        today = today or timezone.localdate()
        return self.unpaid().filter(due_date__lt=today)

