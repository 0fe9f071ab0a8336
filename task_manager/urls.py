# task_manager/urls.py
from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

from tasks.urls import status_urlpatterns
from teams.urls import invitation_urlpatterns

schema_view = get_schema_view(
    openapi.Info(
        title="Task Manager API",
        default_version='v1',
        description="Teams, invitations, statuses and tasks",
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/users/', include('accounts.urls')),
    path('api/teams/', include('teams.urls')),
    path('api/invitations/', include(invitation_urlpatterns)),
    path('api/statuses/', include(status_urlpatterns)),
    path('api/tasks/', include('tasks.urls')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
]
