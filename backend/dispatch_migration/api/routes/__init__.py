from dispatch_migration.api.routes import migrations
