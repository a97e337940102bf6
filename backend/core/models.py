from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class Setting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(encoder=DjangoJSONEncoder)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'settings'

    def __str__(self):
        return f"{self.key}={self.value!r}"


class History(models.Model):
    ACTION_CHOICES = [('create', 'Create'), ('update', 'Update'), ('delete', 'Delete')]

    collection_name = models.CharField(max_length=64)
    document_id = models.CharField(max_length=64)
    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'histories'
        indexes = [
            models.Index(fields=['collection_name', 'document_id', '-timestamp'], name='histories_collect_3e9a52_idx'),
            models.Index(fields=['action'], name='histories_action_71c0d8_idx'),
        ]
        ordering = ['-timestamp']
        verbose_name_plural = 'histories'
