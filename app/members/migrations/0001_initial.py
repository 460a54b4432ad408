import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Member',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('church_join_date', models.DateField(blank=True, null=True)),
                ('baptism_date', models.CharField(blank=True, help_text="Free text, e.g. 'June 2023' or '2023-06-15'", max_length=50)),
                ('attends_life_school', models.BooleanField(default=False)),
                ('attends_bible_institute', models.BooleanField(default=False)),
                ('from_another_church', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('Active', 'Active'), ('Inactive', 'Inactive'), ('New', 'New')], default='New', max_length=10)),
                ('avatar_url', models.URLField(blank=True)),
                ('roles', models.JSONField(blank=True, default=list, help_text='Subset of Leader, Worker, GeneralAttendee')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Member',
                'verbose_name_plural': 'Members',
                'ordering': ['first_name', 'last_name'],
            },
        ),
        migrations.CreateModel(
            name='GDI',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('guide', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='guided_gdis', to='members.member')),
                ('members', models.ManyToManyField(blank=True, related_name='gdi_memberships', to='members.member')),
            ],
            options={
                'verbose_name': 'GDI',
                'verbose_name_plural': 'GDIs',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='MinistryArea',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, unique=True)),
                ('description', models.TextField()),
                ('image_url', models.URLField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('leader', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='led_areas', to='members.member')),
                ('members', models.ManyToManyField(blank=True, related_name='area_memberships', to='members.member')),
            ],
            options={
                'verbose_name': 'Ministry Area',
                'verbose_name_plural': 'Ministry Areas',
                'ordering': ['name'],
            },
        ),
        migrations.AddField(
            model_name='member',
            name='assigned_gdi',
            field=models.ForeignKey(blank=True, help_text='Small group the member attends', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_members', to='members.gdi'),
        ),
        migrations.AddField(
            model_name='member',
            name='assigned_areas',
            field=models.ManyToManyField(blank=True, help_text='Ministry areas the member serves in', related_name='assigned_members', to='members.ministryarea'),
        ),
    ]
