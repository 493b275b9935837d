import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations
from django.db import models

import proserv.chat.models


def _id():
    return models.BigAutoField(
        auto_created=True,
        primary_key=True,
        serialize=False,
        verbose_name="ID",
    )


def _user_fk(related_name, *, nullable=False):
    if nullable:
        return models.ForeignKey(
            blank=True,
            null=True,
            on_delete=django.db.models.deletion.SET_NULL,
            related_name=related_name,
            to=settings.AUTH_USER_MODEL,
        )
    return models.ForeignKey(
        on_delete=django.db.models.deletion.CASCADE,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("service_requests", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Chat",
            fields=[
                ("id", _id()),
                (
                    "chat_type",
                    models.CharField(
                        choices=[
                            ("service_chat", "Service chat"),
                            ("support_chat", "Support chat"),
                            ("group_chat", "Group chat"),
                        ],
                        default="service_chat",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("closed", "Closed"),
                            ("archived", "Archived"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=10,
                    ),
                ),
                ("last_message_text", models.CharField(blank=True, max_length=200)),
                ("last_message_type", models.CharField(blank=True, max_length=20)),
                ("last_message_at", models.DateTimeField(blank=True, null=True)),
                ("total_messages", models.PositiveIntegerField(default=0)),
                ("first_message_at", models.DateTimeField(blank=True, null=True)),
                (
                    "last_activity_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                    ),
                ),
                ("notifications_enabled", models.BooleanField(default=True)),
                (
                    "auto_archive_after_days",
                    models.PositiveIntegerField(
                        default=proserv.chat.models.default_auto_archive_days,
                    ),
                ),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "close_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("service_completed", "Service completed"),
                            ("service_cancelled", "Service cancelled"),
                            ("user_request", "User request"),
                            ("inactivity", "Inactivity"),
                            ("violation", "Violation"),
                        ],
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("closed_by", _user_fk("+", nullable=True)),
                ("created_by", _user_fk("+", nullable=True)),
                ("last_message_sender", _user_fk("+", nullable=True)),
                (
                    "service_request",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chats",
                        to="service_requests.servicerequest",
                    ),
                ),
            ],
            options={
                "ordering": ["-last_activity_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("chat_type", "service_chat")),
                        fields=("service_request",),
                        name="one_service_chat_per_request",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ChatParticipant",
            fields=[
                ("id", _id()),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("client", "Client"),
                            ("professional", "Professional"),
                            ("admin", "Admin"),
                        ],
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("message_count", models.PositiveIntegerField(default=0)),
                ("joined_at", models.DateTimeField(auto_now_add=True)),
                ("left_at", models.DateTimeField(blank=True, null=True)),
                (
                    "chat",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="chat.chat",
                    ),
                ),
                ("user", _user_fk("chat_participations")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("chat", "user"),
                        name="unique_chat_participant",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", _id()),
                (
                    "message_type",
                    models.CharField(
                        choices=[
                            ("text", "Text"),
                            ("image", "Image"),
                            ("file", "File"),
                            ("location", "Location"),
                            ("system", "System"),
                            ("service_update", "Service update"),
                            ("payment_update", "Payment update"),
                            ("quote", "Quote"),
                        ],
                        default="text",
                        max_length=20,
                    ),
                ),
                ("text", models.TextField(blank=True, max_length=4000)),
                ("media", models.JSONField(blank=True, null=True)),
                ("location", models.JSONField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("sent", "Sent"),
                            ("delivered", "Delivered"),
                            ("read", "Read"),
                        ],
                        default="sent",
                        max_length=10,
                    ),
                ),
                ("is_edited", models.BooleanField(default=False)),
                ("edited_at", models.DateTimeField(blank=True, null=True)),
                ("edit_history", models.JSONField(blank=True, default=list)),
                ("is_deleted", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chat",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.chat",
                    ),
                ),
                ("deleted_by", _user_fk("+", nullable=True)),
                (
                    "reply_to",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="replies",
                        to="chat.message",
                    ),
                ),
                ("sender", _user_fk("chat_messages", nullable=True)),
            ],
            options={
                "ordering": ["-created_at", "-pk"],
                "indexes": [
                    models.Index(
                        fields=["chat", "created_at"],
                        name="message_chat_created_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MessageRead",
            fields=[
                ("id", _id()),
                (
                    "read_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reads",
                        to="chat.message",
                    ),
                ),
                ("user", _user_fk("+")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("message", "user"),
                        name="unique_message_read",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MessageReaction",
            fields=[
                ("id", _id()),
                ("emoji", models.CharField(max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reactions",
                        to="chat.message",
                    ),
                ),
                ("user", _user_fk("+")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("message", "user"),
                        name="one_reaction_per_user",
                    ),
                ],
            },
        ),
    ]
