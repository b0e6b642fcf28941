from django.urls import path
from . import views

urlpatterns = [
    path('health/', views.health, name='health'),
    path('cities/', views.cities, name='cities'),
    path('cities/<int:city_id>/', views.city_detail, name='city_detail'),
    path('weather/current/<int:city_id>/', views.current_weather, name='current_weather'),
    path('weather/history/<int:city_id>/', views.history, name='weather_history'),
    path('weather/forecast/<int:city_id>/', views.forecast, name='weather_forecast'),
    path('weather/collect/', views.collect, name='collect_weather'),
]
