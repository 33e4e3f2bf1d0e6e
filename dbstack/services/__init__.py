"""dbstack services: deferred values, transforms, links, components."""
