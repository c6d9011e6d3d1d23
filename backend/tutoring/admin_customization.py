from django.contrib import admin

admin.site.site_title = 'Academy Admin'
admin.site.site_header = 'Academy Scheduling Administration'
admin.site.index_title = 'Dashboard'
