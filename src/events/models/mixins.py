import typing as t

from django.db import models
from django.utils.text import slugify


class SlugFromNameMixin(models.Model):
    slug_source_field = "name"

    class Meta:
        abstract = True

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Override save to auto-create a unique slug."""
        if not self.slug:  # type: ignore[has-type]
            base = slugify(getattr(self, self.slug_source_field)) or "item"
            slug, suffix = base, 2
            while type(self)._default_manager.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base}-{suffix}"
                suffix += 1
            self.slug = slug
        super().save(*args, **kwargs)
