"""
Test suite for the inventory module
Tests: products, low stock filter, stock adjustments, fence styles
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import Product, StockAdjustment, FenceStyle
from backend.inventory.views import apply_adjustment


class ProductAPITests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Warehouse']))

    def test_create_product(self):
        response = self.client.post('/api/v1/products/', {
            'sku': ' cb-post-2400 ',
            'name': 'Colorbond Post 2400mm',
            'category': 'posts',
            'cost_price': '18.50',
            'sell_price': '29.00',
            'stock_on_hand': 40,
            'reorder_point': 15,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sku'], 'CB-POST-2400')
        self.assertEqual(response.data['stock_on_hand'], 40)
        self.assertFalse(response.data['is_low_stock'])

    def test_duplicate_sku_rejected(self):
        TestDataFactory.create_product(sku='RAIL-01')
        response = self.client.post('/api/v1/products/', {
            'sku': 'RAIL-01', 'name': 'Rail', 'category': 'rails',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Product.objects.filter(sku='RAIL-01').count(), 1)

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/products/', {
            'sku': 'CAP-01', 'name': 'Cap', 'category': 'caps', 'sell_price': '-1.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sell_price', response.data)

    def test_stock_not_editable_through_detail(self):
        product = TestDataFactory.create_product(stock_on_hand=5)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'stock_on_hand': 500, 'name': 'Renamed'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stock_on_hand'], 5)
        self.assertEqual(response.data['name'], 'Renamed')

    def test_low_stock_filter(self):
        """Test low stock means at or below the reorder point"""
        TestDataFactory.create_product(sku='LOW-1', stock_on_hand=3, reorder_point=10)
        TestDataFactory.create_product(sku='LOW-2', stock_on_hand=10, reorder_point=10)
        TestDataFactory.create_product(sku='OK-1', stock_on_hand=11, reorder_point=10)
        response = self.client.get('/api/v1/products/?low_stock=true')
        self.assertEqual(sorted(item['sku'] for item in response.data), ['LOW-1', 'LOW-2'])
        self.assertTrue(all(item['is_low_stock'] for item in response.data))
        response = self.client.get('/api/v1/products/?low_stock=false')
        self.assertEqual([item['sku'] for item in response.data], ['OK-1'])

    def test_category_and_search_filters(self):
        TestDataFactory.create_product(sku='GATE-01', name='Pool Gate', category='gates')
        TestDataFactory.create_product(sku='HINGE-01', name='Gate Hinge', category='hardware')
        response = self.client.get('/api/v1/products/?category=gates')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/products/?search=gate')
        self.assertEqual(len(response.data), 2)

    def test_delete_product(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.exists())


class StockAdjustmentTests(TestCase):
    """Test stock adjustments"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Warehouse']))
        self.product = TestDataFactory.create_product(sku='PICKET-01', stock_on_hand=20, reorder_point=5)

    def _adjust(self, adjustment_type, quantity, reason='correction'):
        return self.client.post(f'/api/v1/products/{self.product.id}/stock/', {
            'adjustment_type': adjustment_type, 'quantity': quantity, 'reason': reason,
        }, format='json')

    def test_apply_adjustment(self):
        self.assertEqual(apply_adjustment(self.product, 'in', 5), 25)
        self.assertEqual(apply_adjustment(self.product, 'out', 5), 15)
        self.assertEqual(apply_adjustment(self.product, 'out', 50), 0)
        self.assertEqual(apply_adjustment(self.product, 'count', 7), 7)

    def test_stock_in(self):
        response = self._adjust('in', 12, 'received')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['previous_quantity'], 20)
        self.assertEqual(response.data['new_quantity'], 32)
        self.assertEqual(response.data['product_detail']['stock_on_hand'], 32)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_on_hand, 32)
        audit = AuditLog.objects.get(action='stock_adjust')
        self.assertEqual(audit.object_reference, 'PICKET-01')

    def test_stock_out_floors_at_zero(self):
        response = self._adjust('out', 25, 'job_usage')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['new_quantity'], 0)
        self.assertTrue(response.data['product_detail']['is_low_stock'])

    def test_stock_count_sets_level(self):
        response = self._adjust('count', 0)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_on_hand, 0)

    def test_invalid_quantities(self):
        self.assertEqual(self._adjust('in', 0).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._adjust('out', -2).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._adjust('count', -1).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(StockAdjustment.objects.exists())

    def test_adjustment_history(self):
        self._adjust('in', 5)
        self._adjust('out', 3)
        response = self.client.get(f'/api/v1/products/{self.product.id}/stock/')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/stock-adjustments/')
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['product_name'], self.product.name)


class FenceStyleAPITests(TestCase):
    """Test the fence style catalogue"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Sales']))

    def test_create_and_list_active(self):
        response = self.client.post('/api/v1/fence-styles/', {
            'name': ' Colorbond Classic ', 'standard_heights': [1500, 1800, 2100],
            'post_types': ['steel'], 'base_price': '89.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Colorbond Classic')
        FenceStyle.objects.create(name='Old Paling', is_active=False)

        response = self.client.get('/api/v1/fence-styles/?active=true')
        self.assertEqual([style['name'] for style in response.data], ['Colorbond Classic'])
        response = self.client.get('/api/v1/fence-styles/')
        self.assertEqual(len(response.data), 2)

    def test_duplicate_name_rejected(self):
        FenceStyle.objects.create(name='Pool Glass')
        response = self.client.post('/api/v1/fence-styles/', {'name': 'Pool Glass'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_options_must_be_lists(self):
        response = self.client.post('/api/v1/fence-styles/', {'name': 'Slat', 'post_types': 'steel'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('post_types', response.data)

    def test_update_and_delete(self):
        style = FenceStyle.objects.create(name='Picket')
        response = self.client.patch(f'/api/v1/fence-styles/{style.id}/', {'base_price': '55.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['base_price'], '55.50')
        response = self.client.delete(f'/api/v1/fence-styles/{style.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(model_name='FenceStyle', action='delete').exists())
