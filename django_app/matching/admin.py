from django.contrib import admin
from .models import UserProfile, Photo, Contest, ContestEntry


class PhotoInline(admin.TabularInline):
    model = Photo
    extra = 0
    readonly_fields = ('image_path', 'facial_confidence', 'created_at')
    fields = ('image_path', 'facial_confidence', 'created_at')


class ContestEntryInline(admin.TabularInline):
    model = ContestEntry
    extra = 0
    readonly_fields = ('user', 'photo', 'similarity', 'submitted_at')
    fields = ('user', 'photo', 'similarity', 'submitted_at')


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ('nickname', 'provider', 'provider_user_id', 'photo_count', 'created_at')
    search_fields = ('nickname', 'provider_user_id')
    inlines = [PhotoInline]

    def photo_count(self, obj):
        return obj.photos.count()
    photo_count.short_description = 'Photos'


@admin.register(Photo)
class PhotoAdmin(admin.ModelAdmin):
    list_display = ('pk', 'owner', 'image_path', 'facial_confidence', 'created_at')
    exclude = ('embedding',)
    readonly_fields = ('facial_area', 'facial_confidence')


@admin.register(Contest)
class ContestAdmin(admin.ModelAdmin):
    list_display = ('title', 'status', 'first_place', 'second_place', 'third_place', 'ranking_version')
    list_filter = ('status',)
    readonly_fields = ('ranking_version', 'ranked_at')
    inlines = [ContestEntryInline]
