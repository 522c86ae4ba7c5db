import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import chat.constants
import chat.fields


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
        ),
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "conversation_type",
                    models.CharField(
                        choices=[("direct", "Direct Message"), ("group", "Group")],
                        db_index=True,
                        help_text="Type of conversation (direct or group)",
                        max_length=10,
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Display name for group conversations",
                        max_length=30,
                    ),
                ),
                (
                    "avatar",
                    models.CharField(
                        blank=True,
                        default="/avatars/hugging.png",
                        help_text="Avatar URL for group conversations",
                        max_length=500,
                    ),
                ),
                (
                    "permissions",
                    models.JSONField(
                        default=chat.constants.default_permissions,
                        help_text="Who may perform each group action (admin or all)",
                    ),
                ),
                (
                    "wallpaper",
                    models.JSONField(
                        default=chat.constants.default_wallpaper,
                        help_text="Wallpaper URL and bubble color theme",
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp of the most recent message",
                        null=True,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who created this conversation",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_conversations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "hidden_for",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Users who removed this conversation from their list",
                        related_name="hidden_conversations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-last_message_at", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["-last_message_at"], name="chat_conv_last_msg_idx"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DirectConversationPair",
            fields=[
                _id(),
                (
                    "conversation",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="direct_pair",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user_lower",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user_higher",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_direct_conversation_pair",
                "indexes": [
                    models.Index(
                        fields=["user_lower", "user_higher"],
                        name="chat_direct_pair_users_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("user_lower_id__lt", models.F("user_higher_id"))
                        ),
                        name="user_lower_less_than_higher",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Participant",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "role",
                    models.CharField(
                        blank=True,
                        choices=[("admin", "Admin"), ("member", "Member")],
                        help_text="Role in group conversations (NULL for direct)",
                        max_length=10,
                        null=True,
                    ),
                ),
                (
                    "joined_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        help_text="When the user joined this conversation",
                    ),
                ),
                (
                    "left_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the user left or was removed (NULL if active)",
                        null=True,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="conversation_participations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "removed_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who removed this participant (NULL if left voluntarily)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="removed_participants",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_participant",
                "ordering": ["joined_at"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "left_at"],
                        name="chat_part_conv_active_idx",
                    ),
                    models.Index(
                        fields=["user", "left_at"], name="chat_part_user_active_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("left_at__isnull", True)),
                        fields=("conversation", "user"),
                        name="unique_active_participation",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "is_deleted",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether this record has been soft deleted",
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp when this record was soft deleted",
                        null=True,
                    ),
                ),
                (
                    "message_type",
                    models.CharField(
                        choices=[("text", "Text"), ("system", "System")],
                        default="text",
                        max_length=10,
                    ),
                ),
                (
                    "content",
                    chat.fields.EncryptedTextField(
                        help_text="Message body, stored as iv:ciphertext"
                    ),
                ),
                (
                    "system_event",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Event type for system messages",
                        max_length=30,
                    ),
                ),
                (
                    "system_data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Structured event details for system messages",
                    ),
                ),
                (
                    "edited_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp when message was last edited",
                        null=True,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.conversation",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        blank=True,
                        help_text="Message author (NULL for system messages)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="sent_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reply_to",
                    models.ForeignKey(
                        blank=True,
                        help_text="Message this one replies to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="replies",
                        to="chat.message",
                    ),
                ),
                (
                    "read_by",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Users who have read this message",
                        related_name="read_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "created_at"],
                        name="chat_msg_conv_created_idx",
                    )
                ],
            },
        ),
        migrations.AddField(
            model_name="conversation",
            name="latest_message",
            field=models.ForeignKey(
                blank=True,
                help_text="Most recent message in this conversation",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="chat.message",
            ),
        ),
        migrations.CreateModel(
            name="ReadMarker",
            fields=[
                _id(),
                (
                    "read_at",
                    models.DateTimeField(help_text="When the marker was last moved"),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="read_markers",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="read_markers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "message",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="chat.message",
                    ),
                ),
            ],
            options={
                "db_table": "chat_read_marker",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("conversation", "user"), name="unique_read_marker"
                    )
                ],
            },
        ),
    ]
