"""Pure analysis components: no I/O, no blocking"""
