"""Main URL mapping configuration file."""

from django.contrib import admin
from django.urls import path

from server.apps.workspace import views

urlpatterns = [
    path(
        'folders/<uuid:folder_id>/archive/',
        views.download_folder_archive,
        name='folder-archive',
    ),
    path('admin/', admin.site.urls),
]
