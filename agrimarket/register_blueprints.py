"""
Centralized Blueprint Registration
All blueprints MUST be registered inside register_all_blueprints(app)
"""


def register_all_blueprints(app):

    # Root (health, uploaded images)
    from agrimarket.routes.root.root_routes import root_bp
    app.register_blueprint(root_bp)

    # Auth
    from agrimarket.routes.auth.auth_routes import auth_bp
    app.register_blueprint(auth_bp)

    # Catalog & orders
    from agrimarket.routes.products.product_routes import products_bp
    from agrimarket.routes.orders.order_routes import orders_bp
    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)

    # Farmer self-service
    from agrimarket.routes.farmer.farmer_routes import farmers_bp
    app.register_blueprint(farmers_bp)

    # Admin
    from agrimarket.routes.admin.admin_routes import admin_bp
    app.register_blueprint(admin_bp)

    # Recommendations
    from agrimarket.routes.recommendations.recommendation_routes import recommendations_bp
    app.register_blueprint(recommendations_bp)

    app.logger.info("All blueprints registered: %s", ", ".join(sorted(app.blueprints)))
