from django.urls import path
from . import views

urlpatterns = [
    path('health/', views.health, name='health'),
    path('users/', views.users, name='users'),
    path('users/<int:user_id>/', views.user_detail, name='user-detail'),
    path('photos/', views.photos, name='photos'),
    path('photos/compare/', views.compare, name='compare'),
    path('photos/<int:photo_id>/nearest/', views.nearest, name='nearest'),
    path('contests/', views.contests, name='contests'),
    path('contests/<int:contest_id>/', views.contest_detail, name='contest-detail'),
    path('contests/<int:contest_id>/status/', views.contest_status, name='contest-status'),
    path('contests/<int:contest_id>/entries/', views.contest_entries, name='contest-entries'),
    path('contests/<int:contest_id>/rank/', views.contest_rank, name='contest-rank'),
]
