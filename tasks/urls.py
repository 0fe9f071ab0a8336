# task_manager/tasks/urls.py
from django.urls import path

from .views import StatusDetailView, StatusListCreateView, TaskDetailView, TaskListCreateView

urlpatterns = [
    path('', TaskListCreateView.as_view(), name='task-list-create'),
    path('<uuid:pk>/', TaskDetailView.as_view(), name='task-detail'),
]

status_urlpatterns = [
    path('', StatusListCreateView.as_view(), name='status-list-create'),
    path('<uuid:pk>/', StatusDetailView.as_view(), name='status-detail'),
]
