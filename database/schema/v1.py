"""Schema v1 - Initial database schema.

This version includes tables for:
- Registered users and their password hashes
- Catalog products
- Photos
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'users',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'username', 'type': 'TEXT', 'nullable': False},
                {'name': 'email', 'type': 'TEXT', 'nullable': False},
                {'name': 'password_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_users_email', 'columns': ['email'], 'unique': True}
            ]
        },
        {
            'name': 'products',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'price', 'type': 'DECIMAL'},
                {'name': 'currency', 'type': 'TEXT', 'default': "'USD'"},
                {'name': 'stock', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'category', 'type': 'TEXT'},
                {'name': 'sku', 'type': 'TEXT'},
                {'name': 'brand', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'active'"},
                {'name': 'image_url', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                'stock >= 0',
                'price IS NULL OR price >= 0'
            ],
            'indexes': [
                {'name': 'idx_products_created', 'columns': ['created_at']}
            ]
        },
        {
            'name': 'photos',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'image_url', 'type': 'TEXT', 'nullable': False},
                {'name': 'uploaded_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_photos_uploaded', 'columns': ['uploaded_at']}
            ]
        }
    ]
}
