from tortoise import models, fields


class Farm(models.Model):
    """Модель фермы"""
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=100)
    address = fields.CharField(max_length=255, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "farms"

    def __str__(self):
        return self.name


class Field(models.Model):
    """Модель поля"""
    id = fields.IntField(pk=True)
    farm = fields.ForeignKeyField("models.Farm", related_name="fields")
    name = fields.CharField(max_length=100)
    acres = fields.FloatField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "fields"

    def __str__(self):
        return self.name


class Lab(models.Model):
    """Модель лаборатории"""
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=100)
    phone = fields.CharField(max_length=50, null=True)
    email = fields.CharField(max_length=100, null=True)

    class Meta:
        table = "labs"

    def __str__(self):
        return self.name


class Worker(models.Model):
    """Модель работника"""
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=100)
    position = fields.CharField(max_length=100, null=True)
    phone = fields.CharField(max_length=50, null=True)
    email = fields.CharField(max_length=100, null=True)
    hire_date = fields.DateField(null=True)
    is_active = fields.BooleanField(default=True)
    telegram_id = fields.BigIntField(unique=True, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "workers"

    def __str__(self):
        return self.name


class TimeBlock(models.Model):
    """Модель блока рабочего времени"""
    id = fields.IntField(pk=True)
    worker = fields.ForeignKeyField("models.Worker", related_name="time_blocks")
    work_date = fields.DateField(index=True)
    block_number = fields.SmallIntField()
    clock_in_time = fields.DatetimeField()
    clock_out_time = fields.DatetimeField(null=True)
    hours_worked = fields.FloatField(default=0.0)
    is_active = fields.BooleanField(default=True)
    week_number = fields.SmallIntField()
    year = fields.SmallIntField()
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "time_blocks"
        unique_together = (("worker", "work_date", "block_number"),)

    def __str__(self):
        return f"TimeBlock {self.block_number} - {self.work_date}"


class SoilTest(models.Model):
    """Модель анализа почвы"""
    id = fields.IntField(pk=True)
    field = fields.ForeignKeyField("models.Field", related_name="soil_tests")
    lab = fields.ForeignKeyField("models.Lab", related_name="soil_tests", null=True, on_delete=fields.SET_NULL)
    test_date = fields.DateField()
    ph = fields.FloatField()
    organic_matter = fields.FloatField()
    phosphorus_ppm = fields.FloatField()
    potassium_ppm = fields.FloatField()
    cec = fields.FloatField()
    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "soil_tests"

    def __str__(self):
        return f"SoilTest {self.id} - {self.test_date}"
