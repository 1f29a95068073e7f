# TrailTag - Business logic modules
