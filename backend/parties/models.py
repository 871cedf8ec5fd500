from django.db import models


class Client(models.Model):
    """Public or trade clients of the business"""
    CLIENT_TYPE_CHOICES = [
        ('public', 'Public'),
        ('trade', 'Trade'),
    ]
    TRADE_DISCOUNT_LEVEL_CHOICES = [
        ('bronze', 'Bronze'),
        ('silver', 'Silver'),
        ('gold', 'Gold'),
        ('platinum', 'Platinum'),
    ]

    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    client_type = models.CharField(max_length=20, choices=CLIENT_TYPE_CHOICES, default='public')
    trade_discount_level = models.CharField(max_length=20, choices=TRADE_DISCOUNT_LEVEL_CHOICES, blank=True, null=True)
    company_name = models.CharField(max_length=200, blank=True)
    abn = models.CharField(max_length=20, blank=True, help_text="Australian Business Number for trade clients")
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'clients'
        ordering = ['name', 'id']
