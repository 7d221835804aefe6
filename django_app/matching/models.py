from django.db import models
from django.utils import timezone
from pgvector.django import VectorField

from .embedding import EMBEDDING_DIM


class UserProfile(models.Model):
    provider = models.CharField(max_length=20, default='kakao')
    provider_user_id = models.CharField(max_length=64)
    nickname = models.CharField(max_length=100)
    profile_image_url = models.URLField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['provider', 'provider_user_id'], name='unique_provider_account'
            ),
        ]

    def __str__(self):
        return self.nickname


class Photo(models.Model):
    # Contest target photos have no owner
    owner = models.ForeignKey(
        UserProfile, null=True, blank=True, on_delete=models.CASCADE, related_name='photos'
    )
    image_path = models.CharField(max_length=255)
    # Written once by the vector store, never rewritten
    embedding = VectorField(dimensions=EMBEDDING_DIM, null=True, blank=True)
    facial_area = models.JSONField(null=True, blank=True)
    facial_confidence = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        owner = self.owner.nickname if self.owner_id else 'target'
        return f"{owner} - photo #{self.pk}"


class Contest(models.Model):
    class Status(models.TextChoices):
        CREATED = 'created', 'Created'
        ACTIVE = 'active', 'Active'
        CLOSED = 'closed', 'Closed'

    title = models.CharField(max_length=200)
    target_photo = models.ForeignKey(Photo, on_delete=models.PROTECT, related_name='target_of')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.CREATED)
    first_place = models.ForeignKey(
        UserProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    second_place = models.ForeignKey(
        UserProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    third_place = models.ForeignKey(
        UserProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    ranking_version = models.PositiveIntegerField(default=0)
    ranked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.title} ({self.status})"


class ContestEntry(models.Model):
    contest = models.ForeignKey(Contest, on_delete=models.CASCADE, related_name='entries')
    user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='contest_entries')
    photo = models.ForeignKey(Photo, on_delete=models.CASCADE, related_name='contest_entries')
    # Raw cosine similarity against the contest target at submission time
    similarity = models.FloatField()
    submitted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name_plural = 'contest entries'
        constraints = [
            models.UniqueConstraint(fields=['contest', 'user'], name='one_entry_per_user'),
        ]

    def __str__(self):
        return f"{self.user.nickname} in {self.contest.title} ({self.similarity:.4f})"
