"""Domain packages: one folder per bounded area (schemas, repository, services, router)"""
