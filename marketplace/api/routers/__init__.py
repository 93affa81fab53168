# Route modules grouped by marketplace area: users, products, categories, orders, reviews.
