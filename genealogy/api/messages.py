"""
Messages between users: `/api/messages/`.

- list / retrieve / delete: messages received by the caller.
- create: send to a user by username. The sender is the caller's username;
  the IP is recorded. When the recipient's `contactmethod` is `mailto` or
  `messaging2`, a copy is also emailed to them.

Throttled with scope `messages` on create.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, viewsets
from rest_framework.permissions import IsAuthenticated

from genealogy.models import Message
from genealogy.schema import VALIDATION_ERROR_RESPONSE
from genealogy.serializers import MessageSerializer
from genealogy.sitelog import client_ip

logger = logging.getLogger(__name__)

# Contact methods that also deliver by email.
EMAIL_CONTACT_METHODS = ("mailto", "messaging2")


@extend_schema_view(
    list=extend_schema(tags=["Messages"], description="Messages you received, newest first."),
    retrieve=extend_schema(tags=["Messages"], description="Read one message."),
    create=extend_schema(
        tags=["Messages"],
        responses={201: MessageSerializer, 400: VALIDATION_ERROR_RESPONSE},
        description="Send a message to a user (by username).",
    ),
    destroy=extend_schema(tags=["Messages"], description="Delete a message you received."),
)
class MessageViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    serializer_class = MessageSerializer
    queryset = Message.objects.all()
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        user = getattr(self.request, "user", None)
        if not user or not user.is_authenticated:
            return Message.objects.none()
        return super().get_queryset().filter(user=user)

    def get_throttles(self):
        if self.action == "create":
            self.throttle_scope = "messages"
        return super().get_throttles()

    def perform_create(self, serializer):
        recipient = serializer.validated_data.pop("to")
        message = serializer.save(
            user=recipient,
            sender=self.request.user.username,
            ip_address=client_ip(self.request),
        )
        if recipient.email and recipient.get_preference("contactmethod") in EMAIL_CONTACT_METHODS:
            send_mail(
                message.subject,
                f"{message.body}\n\n-- \n{self.request.user} ({self.request.user.username})",
                settings.DEFAULT_FROM_EMAIL,
                [recipient.email],
            )
        logger.info("Message %s sent to user %s", message.pk, recipient.pk)
