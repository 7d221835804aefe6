from django.db import migrations

INDEX_NAME = 'matching_photo_embedding_hnsw'

# pgvector.django.HnswIndex in Photo.Meta.indexes would be emitted on every
# backend and break the sqlite test database, so the index is created here
# for PostgreSQL only.


def create_hnsw_index(apps, schema_editor):
    # Only PostgreSQL has the pgvector access methods
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(
        f'CREATE INDEX IF NOT EXISTS {INDEX_NAME} '
        'ON matching_photo USING hnsw (embedding vector_cosine_ops)'
    )


def drop_hnsw_index(apps, schema_editor):
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(f'DROP INDEX IF EXISTS {INDEX_NAME}')


class Migration(migrations.Migration):

    dependencies = [
        ('matching', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_hnsw_index, drop_hnsw_index),
    ]
