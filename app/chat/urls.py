"""
URL configuration for chat API.

URL Structure:
    Conversations (router):
        /conversations/                                   GET, POST
        /conversations/{id}/                              GET, PATCH, DELETE
        /conversations/{id}/read/                         POST
        /conversations/{id}/leave/                        POST
        /conversations/{id}/participants/                 POST
        /conversations/{id}/participants/{user_id}/       DELETE

    Messages (nested):
        /conversations/{id}/messages/                     GET, POST
        /conversations/{id}/messages/{pk}/                DELETE
        /conversations/{id}/messages/{pk}/edit/           PATCH
        /conversations/{id}/messages/{pk}/delete-for-me/  POST
        /conversations/{id}/messages/{pk}/reactions/      POST, DELETE

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ConversationViewSet, MessageViewSet

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/",
        MessageViewSet.as_view({"delete": "destroy"}),
        name="conversation-message-detail",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/edit/",
        MessageViewSet.as_view({"patch": "edit"}),
        name="conversation-message-edit",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/delete-for-me/",
        MessageViewSet.as_view({"post": "delete_for_me"}),
        name="conversation-message-delete-for-me",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/reactions/",
        MessageViewSet.as_view({"post": "reactions", "delete": "reactions"}),
        name="conversation-message-reactions",
    ),
]
