"""
clinica_juridica.db.repositories

One repository per aggregate: usuarios, consultantes, grupos, fichas, trámites, hoja de ruta,
notificaciones and auditorías. Services import them from their submodules.
"""
