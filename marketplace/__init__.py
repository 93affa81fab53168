"""
Marketplace backend package.
Buyers, sellers and shippers share one relational store; the API layer lives in `marketplace.api`.
Cross-cutting helpers such as settings, logging and database bootstrap live in `marketplace.common`.
"""
