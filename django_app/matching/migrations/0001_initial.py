import django.db.models.deletion
import django.utils.timezone
import pgvector.django
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        pgvector.django.VectorExtension(),
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provider', models.CharField(default='kakao', max_length=20)),
                ('provider_user_id', models.CharField(max_length=64)),
                ('nickname', models.CharField(max_length=100)),
                ('profile_image_url', models.URLField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('provider', 'provider_user_id'), name='unique_provider_account'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Photo',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('image_path', models.CharField(max_length=255)),
                ('embedding', pgvector.django.VectorField(blank=True, dimensions=512, null=True)),
                ('facial_area', models.JSONField(blank=True, null=True)),
                ('facial_confidence', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('owner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='photos', to='matching.userprofile')),
            ],
        ),
        migrations.CreateModel(
            name='Contest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('status', models.CharField(choices=[('created', 'Created'), ('active', 'Active'), ('closed', 'Closed')], default='created', max_length=10)),
                ('ranking_version', models.PositiveIntegerField(default=0)),
                ('ranked_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('target_photo', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='target_of', to='matching.photo')),
                ('first_place', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='matching.userprofile')),
                ('second_place', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='matching.userprofile')),
                ('third_place', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='matching.userprofile')),
            ],
        ),
        migrations.CreateModel(
            name='ContestEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('similarity', models.FloatField()),
                ('submitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('contest', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='matching.contest')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contest_entries', to='matching.userprofile')),
                ('photo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contest_entries', to='matching.photo')),
            ],
            options={
                'verbose_name_plural': 'contest entries',
                'constraints': [
                    models.UniqueConstraint(fields=('contest', 'user'), name='one_entry_per_user'),
                ],
            },
        ),
    ]
