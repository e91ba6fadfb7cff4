"""Use-case services. Each takes the request's AsyncSession and never commits on its own unless noted."""
