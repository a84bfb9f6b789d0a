import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _record_fields():
    """Columns shared by every TreeRecord subclass (minus `tree`)."""
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("xref", models.CharField(blank=True, max_length=20)),
        ("gedcom", models.TextField(blank=True, default="")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def _tree_fk(related_name):
    return (
        "tree",
        models.ForeignKey(
            on_delete=django.db.models.deletion.CASCADE,
            related_name=related_name,
            to="genealogy.tree",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tree",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.SlugField(max_length=64, unique=True)),
                ("title", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("title", "name"),
            },
        ),
        migrations.CreateModel(
            name="TreeSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("setting_name", models.CharField(max_length=32)),
                ("setting_value", models.TextField(blank=True, default="")),
                _tree_fk("setting_rows"),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("tree", "setting_name"), name="unique_tree_setting"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserTreeSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("setting_name", models.CharField(max_length=32)),
                ("setting_value", models.CharField(blank=True, default="", max_length=255)),
                _tree_fk("user_settings"),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tree_settings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["tree", "setting_name", "setting_value"], name="genealogy_usertree_value_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "tree", "setting_name"), name="unique_user_tree_setting"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Individual",
            fields=_record_fields() + [
                ("name", models.CharField(max_length=255)),
                (
                    "sex",
                    models.CharField(
                        choices=[("M", "Male"), ("F", "Female"), ("U", "Unknown")], default="U", max_length=1
                    ),
                ),
                ("given_names", models.CharField(blank=True, default="", max_length=255)),
                ("surname_prefix", models.CharField(blank=True, default="", max_length=64)),
                ("surname", models.CharField(blank=True, db_index=True, default="", max_length=255)),
                ("married_name", models.CharField(blank=True, default="", max_length=255)),
                ("birth_date", models.CharField(blank=True, default="", max_length=64)),
                ("birth_place", models.CharField(blank=True, default="", max_length=255)),
                ("death_date", models.CharField(blank=True, default="", max_length=64)),
                ("death_place", models.CharField(blank=True, default="", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                _tree_fk("individual_records"),
            ],
            options={
                "ordering": ("id",),
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(fields=("tree", "xref"), name="genealogy_individual_unique_xref"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Source",
            fields=_record_fields() + [
                ("title", models.CharField(max_length=255)),
                ("author", models.CharField(blank=True, default="", max_length=255)),
                ("publication", models.CharField(blank=True, default="", max_length=255)),
                ("text", models.TextField(blank=True, default="")),
                _tree_fk("source_records"),
            ],
            options={
                "ordering": ("id",),
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(fields=("tree", "xref"), name="genealogy_source_unique_xref"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Family",
            fields=_record_fields() + [
                ("marriage_date", models.CharField(blank=True, default="", max_length=64)),
                ("marriage_place", models.CharField(blank=True, default="", max_length=255)),
                (
                    "children",
                    models.ManyToManyField(blank=True, related_name="child_in_families", to="genealogy.individual"),
                ),
                (
                    "husband",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="husband_in_families",
                        to="genealogy.individual",
                    ),
                ),
                (
                    "wife",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="wife_in_families",
                        to="genealogy.individual",
                    ),
                ),
                _tree_fk("family_records"),
            ],
            options={
                "verbose_name_plural": "families",
                "ordering": ("id",),
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(fields=("tree", "xref"), name="genealogy_family_unique_xref"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MediaObject",
            fields=_record_fields() + [
                ("file", models.FileField(blank=True, upload_to="media/%Y/%m")),
                ("file_reference", models.CharField(blank=True, default="", max_length=255)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("mime_type", models.CharField(blank=True, default="", max_length=100)),
                (
                    "individuals",
                    models.ManyToManyField(blank=True, related_name="media_objects", to="genealogy.individual"),
                ),
                _tree_fk("mediaobject_records"),
            ],
            options={
                "ordering": ("id",),
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(fields=("tree", "xref"), name="genealogy_mediaobject_unique_xref"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PendingChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "record_type",
                    models.CharField(
                        choices=[
                            ("individual", "Individual"),
                            ("family", "Family"),
                            ("source", "Source"),
                            ("media", "Media object"),
                        ],
                        max_length=16,
                    ),
                ),
                ("object_id", models.BigIntegerField(blank=True, null=True)),
                ("xref", models.CharField(blank=True, default="", max_length=20)),
                (
                    "action",
                    models.CharField(
                        choices=[("create", "Create"), ("update", "Update"), ("delete", "Delete")], max_length=8
                    ),
                ),
                ("old_data", models.JSONField(blank=True, null=True)),
                ("new_data", models.JSONField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("accepted", "Accepted"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                _tree_fk("pending_changes"),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pending_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["tree", "status"], name="genealogy_change_tree_idx"),
                    models.Index(fields=["user", "status"], name="genealogy_change_user_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Block",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "location",
                    models.CharField(choices=[("main", "Main"), ("side", "Side")], default="main", max_length=4),
                ),
                ("block_order", models.PositiveIntegerField(default=0)),
                ("module_name", models.CharField(max_length=32)),
                (
                    "tree",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks",
                        to="genealogy.tree",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("location", "block_order", "id"),
            },
        ),
        migrations.CreateModel(
            name="BlockSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("setting_name", models.CharField(max_length=32)),
                ("setting_value", models.TextField(blank=True, default="")),
                (
                    "block",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="settings",
                        to="genealogy.block",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("block", "setting_name"), name="unique_block_setting"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sender", models.CharField(max_length=254)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("subject", models.CharField(max_length=255)),
                ("body", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="received_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="SiteLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "log_type",
                    models.CharField(
                        choices=[
                            ("auth", "Authentication"),
                            ("config", "Configuration"),
                            ("debug", "Debug"),
                            ("edit", "Edit"),
                            ("error", "Error"),
                            ("media", "Media"),
                            ("search", "Search"),
                        ],
                        max_length=8,
                    ),
                ),
                ("message", models.TextField()),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("request_id", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "tree",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="site_log",
                        to="genealogy.tree",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="site_log",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["log_type", "created_at"], name="genealogy_sitelog_type_idx"),
                ],
            },
        ),
    ]
