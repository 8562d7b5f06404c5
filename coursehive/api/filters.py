import django_filters

from coursehive.models import Course


class CourseFilter(django_filters.FilterSet):
    """Price range filtering for the course catalogue."""
    minPrice = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    maxPrice = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Course
        fields = ['minPrice', 'maxPrice']
