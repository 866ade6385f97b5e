import uuid

import django.db.models.deletion
from django.db import migrations, models


def create_registry_lock(apps, schema_editor):
    RegistryLock = apps.get_model('beds', 'RegistryLock')
    RegistryLock.objects.using(schema_editor.connection.alias).get_or_create(name='beds')


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Bed',
            fields=[
                ('number', models.PositiveIntegerField(primary_key=True, serialize=False)),
                ('occupied', models.BooleanField(db_index=True, default=False)),
            ],
            options={
                'ordering': ['number'],
            },
        ),
        migrations.CreateModel(
            name='RegistryLock',
            fields=[
                ('name', models.CharField(max_length=32, primary_key=True, serialize=False)),
            ],
        ),
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('uhid', models.CharField(max_length=255, unique=True)),
                ('name', models.CharField(max_length=255)),
                ('last_updated', models.DateTimeField(auto_now=True)),
                ('bed', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='beds.bed')),
            ],
        ),
        migrations.AddConstraint(
            model_name='patient',
            constraint=models.UniqueConstraint(fields=('bed',), name='unique_patient_bed'),
        ),
        migrations.RunPython(create_registry_lock, migrations.RunPython.noop),
    ]
