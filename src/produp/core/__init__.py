"""重写原语与拦截模块"""
