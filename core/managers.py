"""Proxy-model helpers for tables that hold several document kinds.

A proxy sets DOC_TYPE; its manager only returns rows of that kind and saving
through the proxy stamps the kind.
"""

from django.db import models


class DocTypeManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(doc_type=self.model.DOC_TYPE)


class DocTypeProxyMixin:
    def save(self, *args, **kwargs):
        self.doc_type = self.DOC_TYPE
        super().save(*args, **kwargs)
