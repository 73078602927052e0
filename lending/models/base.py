"""
Base Models for the Lending Workflow
====================================

Provides:
- UUID primary keys
- Common timestamp fields
"""

from django.db import models
import uuid


class BaseModel(models.Model):
    """
    Base model with common fields

    Features:
    - UUID primary key
    - Timestamp tracking (created, updated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    # Timestamps
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When this record was created"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When this record was last updated"
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']
